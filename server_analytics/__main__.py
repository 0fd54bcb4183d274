"""
使用方式:
    python -m server_analytics [serve|collect|poll|add-server]
"""

from server_analytics.main import cli

if __name__ == "__main__":
    cli()
