"""
Services: reasoning backend, web research and voiceover.
"""
