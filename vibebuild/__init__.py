# VibeBuild: prompt-to-build agent pipeline with a serialized world thread.
