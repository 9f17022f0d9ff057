"""File upload and retrieval for the archive.

Files are stored in the chunked blob store under the ``uploads`` bucket and
looked up by their original filename. JPEG and PNG files are classified as
images and can be served through ``/image/{filename}``; every file can be
read through ``/read/{filename}``.
"""
