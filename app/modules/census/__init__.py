"""
Census Module

Importación del archivo de recensement INSEE hacia regiones,
departamentos y ciudades.

- importer.py -> CensusImporter (caches por código, una fila a la vez)
- tasks.py -> Tarea Celery que ejecuta la importación en segundo plano
- scripts/import_census.py -> Ejecución puntual desde la línea de comandos
"""
