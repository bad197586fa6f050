from pytest_archon import archrule

CORE_MODULES = (
    "service_messenger.contract",
    "service_messenger.envelope",
    "service_messenger.serialization",
    "service_messenger.retry",
    "service_messenger.dead_letter",
    "service_messenger.exceptions",
    "service_messenger.ports",
    "service_messenger.shutdown",
    "service_messenger.config",
)


def test_core_is_broker_independent() -> None:
    """
    Contracts, wire format and policies must not depend on a broker SDK or
    on a concrete adapter.
    """
    rule = archrule("core_is_broker_independent")
    for module in CORE_MODULES:
        rule = rule.match(module)
    (
        rule.should_not_import("google*")
        .should_not_import("aio_pika*")
        .should_not_import("service_messenger.pubsub*")
        .should_not_import("service_messenger.rabbitmq*")
        .should_not_import("service_messenger.memory*")
        .should_not_import("service_messenger.messenger")
        .check("service_messenger", only_direct_imports=True)
    )


def test_adapters_do_not_know_the_messenger() -> None:
    """
    Adapters receive already namespaced queues; they must not reach back into
    the messenger or the application templates.
    """
    (
        archrule("adapters_isolation")
        .match("service_messenger.pubsub*")
        .match("service_messenger.rabbitmq*")
        .match("service_messenger.memory*")
        .should_not_import("service_messenger.messenger")
        .should_not_import("service_messenger.consumers*")
        .should_not_import("service_messenger.publishers*")
        .check("service_messenger", only_direct_imports=True)
    )


def test_adapters_do_not_share_sdks() -> None:
    """
    Each adapter imports only its own broker SDK so extras stay optional.
    """
    (
        archrule("pubsub_sdk_only")
        .match("service_messenger.pubsub*")
        .should_not_import("aio_pika*")
        .check("service_messenger", only_direct_imports=True)
    )
    (
        archrule("rabbitmq_sdk_only")
        .match("service_messenger.rabbitmq*")
        .should_not_import("google*")
        .check("service_messenger", only_direct_imports=True)
    )
    (
        archrule("memory_without_sdk")
        .match("service_messenger.memory*")
        .should_not_import("google*")
        .should_not_import("aio_pika*")
        .check("service_messenger", only_direct_imports=True)
    )


def test_templates_do_not_depend_on_adapters() -> None:
    """
    Consumer and publisher templates depend on contracts, never on a broker.
    """
    (
        archrule("templates_isolation")
        .match("service_messenger.consumers*")
        .match("service_messenger.publishers*")
        .should_not_import("service_messenger.pubsub*")
        .should_not_import("service_messenger.rabbitmq*")
        .should_not_import("service_messenger.memory*")
        .check("service_messenger", only_direct_imports=True)
    )
