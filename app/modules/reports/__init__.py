"""
Reports Module

Exportación de listas de ciudades a PDF (ReportLab) y CSV.

Este módulo NO crea tablas ni consulta la base de datos: los routers de
locations obtienen las ciudades con CityService y entregan las vistas
(CityView) a los renderers.

Architecture Pattern:
- renderers.py -> Escritura de PDF/CSV sobre un sink binario
- utils/ -> Encabezados, formateo de celdas y respuesta de descarga
"""
