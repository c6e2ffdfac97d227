"""
Regiones, departamentos y ciudades: modelos, CRUD, servicios y rutas HTTP.
"""
