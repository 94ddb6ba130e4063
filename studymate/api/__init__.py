"""API 模块"""
