"""
Infrastructure helpers shared by services and core: logging and errors.
"""
