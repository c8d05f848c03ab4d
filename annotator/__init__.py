"""
Annotator Package

Image annotation canvas and augmentation engine, organized into:
- config.py: Constants and environment overrides
- state.py: Editor context for one project
- cli.py: Batch augmentation command line
- services/annotation/: Data model, store, projects, autosave
- services/canvas/: Coordinate mapping, tools, rendering
- services/augmentation/: Geometric and photometric augmentation
"""
__version__ = "0.1.0"
