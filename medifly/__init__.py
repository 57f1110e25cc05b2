"""
Medifly chat-to-search assistant for hospitals and doctors.
"""
