"""Campus Library: university library management web application."""
from campus_library.app import create_app

__all__ = ['create_app']
