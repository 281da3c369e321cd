"""
API client modules for Teamleader
"""
from .teamleader_client import TeamleaderClient
from .token_manager import OAuthToken, TokenManager, parse_redirect_url

__all__ = ['TeamleaderClient', 'OAuthToken', 'TokenManager', 'parse_redirect_url']
