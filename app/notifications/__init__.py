"""Outbound email notifications"""
