"""
Image uploads stored on disk under UPLOAD_DIR and served at /uploads.
"""
