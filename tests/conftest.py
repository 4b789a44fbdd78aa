import pytest

from engine.build import EndpointPair, TopologyBuilder

INITIATOR_IP = "1.2.3.4"
RESPONDER_IP = "5.6.7.8"


@pytest.fixture
def endpoints():
    return EndpointPair(initiator_ip=INITIATOR_IP, responder_ip=RESPONDER_IP)


@pytest.fixture
def initiator_graph():
    return TopologyBuilder().build("initiator", INITIATOR_IP, RESPONDER_IP, [443, 8443])


@pytest.fixture
def responder_graph():
    return TopologyBuilder().build("responder", RESPONDER_IP, INITIATOR_IP, [])
