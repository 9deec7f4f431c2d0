"""
======================== ÍNDICE / INDEX ========================
1. Descripción general / Overview
2. Componentes principales / Main components
3. Notas de mantenimiento / Maintenance notes

======================== ESPAÑOL ========================
Archivo: `src/padron/__init__.py`.
Motor de sincronización y búsqueda del padrón: réplica local de un registro
remoto paginado con búsqueda multi-modo.

Componentes detectados:
  - (sin componentes de nivel de módulo / no top-level components)

Notas:
- Mantener esta cabecera sincronizada con cambios estructurales del archivo.

======================== ENGLISH ========================
File: `src/padron/__init__.py`.
Registry synchronization and search engine: local replica of a paginated
remote registry with multi-mode search.

Detected components:
  - (sin componentes de nivel de módulo / no top-level components)

Notes:
- Keep this header in sync with structural changes in the file.
"""

__version__ = "0.2.0"
