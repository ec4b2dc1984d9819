import typing

from behave import then, use_step_matcher, when

from solana_easy.derivation import (
    DerivationPath,
    InvalidMnemonic,
    derive_path,
    mnemonic_to_seed,
    normalize_mnemonic,
)
from solana_easy.wallet import Wallet

# Use regular expressions
use_step_matcher("re")


@when(r"I derive along path (?P<path>\S+)")
def when_derive(context: typing.Any, path: str):
    context.output = derive_path(path, context.input)


@when(r"I compute the seed with passphrase (?P<passphrase>\S*)")
def when_seed(context: typing.Any, passphrase: str):
    context.output = mnemonic_to_seed(context.input, passphrase)


@when(r"I normalize the mnemonic")
def when_normalize(context: typing.Any):
    context.output = normalize_mnemonic(context.input)


@when(r"I restore the wallet")
def when_restore(context: typing.Any):
    try:
        context.output = Wallet.restore_from_mnemonic(context.input)
    except InvalidMnemonic as e:
        context.output = e


@when(r"I restore a wallet on path (?P<name>\S+)")
def when_restore_on_path(context: typing.Any, name: str):
    context.wallet = Wallet.restore_from_mnemonic(
        context.input, path=DerivationPath.from_name(name)
    )


@when(r"I generate a wallet")
def when_generate(context: typing.Any):
    context.wallet = Wallet.generate()


@then(r"the mnemonic should be rejected")
def then_invalid_mnemonic(context: typing.Any):
    assert isinstance(context.output, InvalidMnemonic)


@then(r"restoring again on path (?P<name>\S+) gives the same public key")
def then_same_on_path(context: typing.Any, name: str):
    restored = Wallet.restore_from_mnemonic(
        context.input, path=DerivationPath.from_name(name)
    )
    assert restored.public_key == context.wallet.public_key


@then(r"the wallet derivation path should be (?P<path>\S+)")
def then_derivation_path(context: typing.Any, path: str):
    assert context.wallet.derivation_path == path, (
        "Expected " + path + " but got " + str(context.wallet.derivation_path)
    )


@then(r"the mnemonic should have (?P<count>[0-9]+) words")
def then_word_count(context: typing.Any, count: str):
    assert len(context.wallet.mnemonic.split(" ")) == int(count)


@then(r"restoring from its mnemonic gives the same public key")
def then_same_from_mnemonic(context: typing.Any):
    restored = Wallet.restore_from_mnemonic(context.wallet.mnemonic)
    assert restored.public_key == context.wallet.public_key


@then(r"restoring from its private key gives the same private key")
def then_same_private_key(context: typing.Any):
    restored = Wallet.restore_from_private_key(context.wallet.private_key)
    assert restored.private_key == context.wallet.private_key
