"""
Voice client.

Records an utterance from the microphone, relays it through the relay server
to the agent and keeps the resulting chat transcript. Also reads streamed
generations from the relay server.
"""
