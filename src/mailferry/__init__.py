"""
mailferry

Routes email attachments from a Gmail mailbox into Google Drive folders
according to user-defined rules, renaming files from a template and
marking processed threads as read.
"""

__version__ = "1.0.0"
__app_name__ = "mailferry"
