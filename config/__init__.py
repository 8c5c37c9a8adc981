"""
Configuration module for the rental reservation reconciler.
"""

from .settings import supabase_config, app_config, AppConfig, SupabaseConfig

__all__ = ['supabase_config', 'app_config', 'AppConfig', 'SupabaseConfig']
