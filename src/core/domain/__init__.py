"""Dominio: credenciales, candidatos de endpoint, planes y resultados.

Estructuras puras (Pydantic v2) sin I/O; el transporte vive en `adapters`.
"""
