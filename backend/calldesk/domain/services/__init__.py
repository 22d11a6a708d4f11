"""Worklist domain services"""
