"""
Agent relay: the shared half of the capture-relay-stream pipeline.

- errors: failure taxonomy and user-facing messages
- models: AudioArtifact
- client: multipart POST relay to an agent endpoint
- normalizer: variable reply shape -> display text
"""
