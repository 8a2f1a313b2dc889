"""
Application Layer

Contains the playback controller, the command router and the port
interfaces it drives. This layer orchestrates domain objects and
infrastructure adapters.

Structure:
- commands/: command names, permission policy and the command router
- services/: the playback controller state machine
- interfaces/: port interfaces for infrastructure adapters
"""
