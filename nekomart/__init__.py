"""NekoMart Order Service"""
