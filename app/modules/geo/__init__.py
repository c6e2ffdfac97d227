"""
Cliente de geo.api.gouv.fr.
"""
