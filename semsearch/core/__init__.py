"""
Engine core: catalog, resource loaders, bootstrap and query pipeline.
"""
