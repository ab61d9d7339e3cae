from . import cleanup, config, deploy, status, troubleshoot, tunnel

__all__ = ['cleanup', 'config', 'deploy', 'status', 'troubleshoot', 'tunnel']
