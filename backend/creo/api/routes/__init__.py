from creo.api.routes import batches, providers

__all__ = [
    'batches',
    'providers',
]
