"""
Routes Package
Exports all route blueprints
"""
from examcore.routes.execution import execution_bp
from examcore.routes.progression import progression_bp

__all__ = ['execution_bp', 'progression_bp']
