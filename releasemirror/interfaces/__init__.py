"""
Public entry points: the Python API facade and the command line.
"""
