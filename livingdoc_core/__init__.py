"""
Core del motor de documentos vivos (livingdocs).

Contiene:
- Designs y árbol de componentes (`designs`, `component_tree`)
- Metadata pluggable: schemas, validadores y store (`metadata`)
- Pipeline de importación con procesamiento asíncrono de assets (`pipeline`)
- Workflow editorial por tareas y gate de publicación (`workflow`)
- Armado de todo lo anterior (`engine`)
"""

__version__ = "0.1.0"
