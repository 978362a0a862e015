"""Host application wiring and tracking hooks"""
