"""
Quicknote: notes-taking web application with user accounts
"""
