"""
Relay server for the voice assistant.

Sits between the voice client and the remote services:
- relays recorded audio to the external agent webhook
- republishes upstream text generation as Server-Sent Events

Holds no conversation state; the transcript lives with the client.
"""
