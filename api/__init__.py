"""
API HTTP para livingdoc-core.

Esta capa expone endpoints REST que usan el core interno
(livingdoc_core.engine) para:
- importar artículos externos a un canal
- leer/escribir metadata validada
- avanzar tareas del workflow editorial y consultar el gate de publicación

La consumen el editor y las herramientas de administración.
"""
