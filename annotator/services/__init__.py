"""Annotator services"""
