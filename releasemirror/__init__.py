"""
release-mirror: mirror GitHub releases (notes and attachments) onto Gitee.
"""

__version__ = "0.1.0"
