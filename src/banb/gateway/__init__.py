from banb.gateway.protocol import GatewayResponse, ProtocolGateway, SERVER_INFO  # noqa: F401
