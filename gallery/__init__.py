"""Galilego core package.

Modules:
- config: INI parsing and config object
- errors: GalleryError hierarchy shared by the worker and web layer
- path_utils: gallery-relative path normalisation and containment checks
- logging_config: rich console and rotating file logging setup
- cache: cache path mapping and atomic cache writes
- resizer: Pillow decode / thumbnail fit / JPEG encode
- worker: single serialized image request worker
- gateway: blocking resolve() used by the web layer
- listing: gallery directory listing and breadcrumbs
"""
