"""Interfaces/abstracciones del Core.

Por qué:
- Define contratos (Protocol) que implementan los stores concretos.
- Permite inyectar dobles de test en el ejecutor de fallbacks.
"""
