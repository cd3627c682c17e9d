"""kintone identity-provisioning connector.

To drive the connector:
    from kintone_connector.core.connector import KintoneConnector
    from kintone_connector.config import load_settings

    connector = KintoneConnector(load_settings())

To use the kintone REST client alone:
    from kintone_connector.core.kintone import KintoneClient
"""

__version__ = "0.3.0"
