"""content/ -- Site content: pages, testimonials, customer inquiries, interest sign-ups and text banners.

Layer rule: imports only from core/.
"""
