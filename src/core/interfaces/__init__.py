"""Interfaces/abstracciones del Core.

Por qué:
- Define contratos (Protocol) que implementan adaptadores concretos.
- El Core (jobs, builder) depende de abstracciones, no de httpx.
"""
