"""
Core utilities: error taxonomy shared by parser, classifier, pipeline and storage.
"""
