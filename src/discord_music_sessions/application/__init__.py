"""
Application Layer

Orchestrates domain objects and infrastructure adapters.

Structure:
- services/: Voice sessions, playback sessions and the session manager
- interfaces/: Port interfaces for infrastructure adapters
"""
