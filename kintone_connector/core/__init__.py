"""Core connector logic (framework-independent).

Layers, leaves first: ``rest`` (transport and error taxonomy), ``pagination``,
``schema`` / ``applier`` / ``associations`` (attribute mapping engine),
``kintone`` (backend) and ``connector`` (caller entry points).
"""
