"""
Data structures coming from/to the API, and the references to address them.

All the functions here are purely data-manipulative and computational.
No external calls or any i/o activities are done here.
"""
