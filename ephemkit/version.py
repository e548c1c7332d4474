# ephemkit/version.py
# Read by setuptools (tool.setuptools.dynamic) at build time.
VERSION = "0.1.0"
