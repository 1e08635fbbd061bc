"""
Shared structured events for the relay server and the voice client.
"""
