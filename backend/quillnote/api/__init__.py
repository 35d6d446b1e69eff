"""HTTP routers, mounted under ``/api`` by :mod:`quillnote.main`."""
