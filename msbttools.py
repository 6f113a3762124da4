# -*- coding: utf-8 -*-
import argparse
import sys
import os
import inspect
import codecs
import chardet
import polib
import ruamel.yaml
from ruamel.yaml.scalarstring import PreservedScalarString
from datetime import datetime, timezone

import msbt

"""
Command line helpers for translating MSBT message files.

    msbttools.py msbt_to_text en_Menu.msbt
    msbttools.py text_to_msbt en_Menu_text.txt

Text files are written as UTF-8 with Unix newlines. Control tags inside a body can
hold lone UTF-16 surrogates, these are written with 'surrogatepass' so they come
back unchanged.
"""
# List to hold information about callable functions
callable_functions = []


def mainFunction(func):
    """Decorator to mark functions as callable and add them to the list."""
    callable_functions.append(func)
    return func


def print_help():
    print("Available callable functions:")
    for func in callable_functions:
        print("- {}: {}".format(func.__name__, func.__doc__))


def print_docstrings():
    print("Docstrings for callable functions:")
    for func in callable_functions:
        print("\nFunction: {}".format(func.__name__))
        docstring = inspect.getdoc(func)
        if docstring:
            encoding = sys.stdout.encoding or 'utf-8'
            encoded_docstring = docstring.encode(encoding, errors='ignore').decode(encoding)
            print(encoded_docstring)
        else:
            print("No docstring available.")


def main(argv=None):
    parser = argparse.ArgumentParser(description="Convert MSBT message files to and from editable text.")
    parser.add_argument("--help-functions", action="store_true", help="Print available functions and their docstrings.")
    parser.add_argument("--list-functions", action="store_true", help="List available functions without docstrings.")
    parser.add_argument("--usage", action="store_true", help="Display usage information.")
    parser.add_argument("function", nargs="?", help="The name of the function to execute.")
    parser.add_argument("args", nargs=argparse.REMAINDER, help="Arguments for the function.")

    args = parser.parse_args(argv)

    if args.usage:
        print("Usage: msbttools.py function [args [args ...]]")
        print("       msbttools.py --help-functions, or help")
        print("       msbttools.py --list-functions, or list")
    elif args.help_functions or args.function == "help":
        print_docstrings()
    elif args.list_functions or args.function == "list":
        print("Available functions:")
        for func in callable_functions:
            print(func.__name__)
    elif args.function:
        function_name = args.function
        for func in callable_functions:
            if func.__name__ == function_name:
                func_args = args.args
                try:
                    inspect.signature(func).bind(*func_args)
                except TypeError:
                    print("Usage: {} {}".format(func.__name__, inspect.signature(func)))
                else:
                    func(*func_args)
                break
        else:
            print("Unknown function: {}".format(function_name))
    else:
        print("No command provided.")


# File helpers ----------------------------------------------------------------
def generate_output_filename(input_file, name_text=None, file_extension=None, output_filename=None,
                             output_folder=None):
    """
    Build an output filename next to the working directory from an input filename.

    Args:
        input_file (str): The file the output is derived from, e.g. 'en_Menu.msbt'.
        name_text (str, optional): Suffix describing the output, e.g. 'text' gives 'en_Menu_text'.
        file_extension (str, optional): Extension with or without the dot. Defaults to '.txt'.
        output_filename (str, optional): Use this base name instead of the derived one.
        output_folder (str, optional): Folder to place the file in, created when missing.

    Returns:
        str: The output path.
    """
    extension = None
    if output_filename:
        base_name = output_filename
        if os.path.splitext(base_name)[1]:
            extension = ""
    else:
        base_filename = os.path.splitext(os.path.basename(input_file))[0]
        parts = [base_filename.strip('_')]
        if name_text:
            parts.append(name_text.strip().lower().replace(' ', '_').strip('_'))
        base_name = "_".join(filter(None, parts))

    if extension is None:
        if file_extension:
            extension = file_extension if file_extension.startswith('.') else f".{file_extension}"
        else:
            extension = ".txt"
    base_name = f"{base_name}{extension}"

    if output_folder:
        os.makedirs(output_folder, exist_ok=True)
        return os.path.join(output_folder, base_name)
    return base_name


def read_msbt_file(msbt_filename):
    with open(msbt_filename, 'rb') as msbtIn:
        return msbt.from_binary(msbtIn.read())


def write_msbt_file(msbt_filename, message_file):
    binary = message_file.to_binary()
    with open(msbt_filename, 'wb') as msbtOut:
        msbtOut.write(binary)
    return len(binary)


def read_text_document(text_filename):
    """
    Read a text document, detecting its encoding.

    UTF-8 (with or without BOM) is tried first; anything else is handed to chardet,
    which also recognises UTF-16 files saved with a BOM. A wrong guess raises
    UnicodeDecodeError. Newlines are kept as they are in the file.
    """
    with open(text_filename, 'rb') as textIns:
        raw = textIns.read()

    if raw.startswith(codecs.BOM_UTF8):
        return raw[len(codecs.BOM_UTF8):].decode('utf-8', errors='surrogatepass')
    try:
        return raw.decode('utf-8', errors='surrogatepass')
    except UnicodeDecodeError:
        result = chardet.detect(raw)
        detected_encoding = result['encoding'] or 'utf-8'
        print("[read_text_document]: {} detected as {} (confidence {:.2f})".format(
            text_filename, detected_encoding, result.get('confidence') or 0.0))
        return raw.decode(detected_encoding)


def write_text_document(text_filename, document):
    with open(text_filename, 'w', encoding='utf-8', errors='surrogatepass', newline='\n') as textOut:
        textOut.write(document)


def create_yaml():
    yaml = ruamel.yaml.YAML()
    yaml.preserve_quotes = True
    yaml.width = float("inf")
    return yaml


# Commands --------------------------------------------------------------------
@mainFunction
def msbt_to_text(msbt_filename, output_filename=None):
    """
    Write an MSBT file as an editable text document.

    Args:
        msbt_filename (str): The .msbt file to read, e.g. 'en_Menu.msbt'.
        output_filename (str, optional): Output name. Defaults to '<name>_text.txt'.

    Output:
        Every entry is written as a block literal with two-space indented lines:

            Greeting: |-
              Hello
              world
    """
    output_filename = generate_output_filename(msbt_filename, "text", output_filename=output_filename)
    try:
        message_file = read_msbt_file(msbt_filename)
    except FileNotFoundError:
        print("{} not found. Aborting.".format(msbt_filename))
        return None
    except msbt.FormatError as e:
        print("Error reading {}: {}".format(msbt_filename, e))
        return None

    if message_file.attributes is not None:
        print("[msbt_to_text]: {} bytes of ATR1 attributes are not part of the text output".format(
            len(message_file.attributes)))

    write_text_document(output_filename, message_file.to_text())
    print(f"[msbt_to_text]: Number of Entries: {len(message_file.labels)}")
    print(f"Done. Output written to {output_filename}")
    return output_filename


@mainFunction
def text_to_msbt(text_filename, output_filename=None):
    """
    Build an MSBT file from a text document written by msbt_to_text.

    Args:
        text_filename (str): The text document, UTF-8 or any encoding chardet can detect.
        output_filename (str, optional): Output name. Defaults to '<name>_msbt.msbt'.
    """
    output_filename = generate_output_filename(text_filename, "msbt", file_extension="msbt",
                                               output_filename=output_filename)
    try:
        document = read_text_document(text_filename)
        message_file = msbt.from_text(document)
    except FileNotFoundError:
        print("{} not found. Aborting.".format(text_filename))
        return None
    except UnicodeDecodeError as e:
        print("Error decoding {}: {}".format(text_filename, e))
        return None
    except msbt.FormatError as e:
        print("Error reading {}: {}".format(text_filename, e))
        return None

    try:
        size = write_msbt_file(output_filename, message_file)
    except msbt.FormatError as e:
        print("Error writing {}: {}".format(output_filename, e))
        return None

    print(f"[text_to_msbt]: Number of Entries: {len(message_file.labels)}")
    print(f"[text_to_msbt]: File Size: {size}")
    print(f"Done. Output written to {output_filename}")
    return output_filename


@mainFunction
def msbt_to_yaml(msbt_filename, output_filename=None):
    """
    Write an MSBT file as a YAML mapping of label to text for Weblate.

    Args:
        msbt_filename (str): The .msbt file to read.
        output_filename (str, optional): Output name. Defaults to '<name>.yaml'.

    Notes:
        Labels must be unique to survive as YAML keys; repeated labels keep the first text.
    """
    output_filename = generate_output_filename(msbt_filename, file_extension="yaml",
                                               output_filename=output_filename)
    try:
        message_file = read_msbt_file(msbt_filename)
    except FileNotFoundError:
        print("{} not found. Aborting.".format(msbt_filename))
        return None
    except msbt.FormatError as e:
        print("Error reading {}: {}".format(msbt_filename, e))
        return None

    if message_file.attributes is not None:
        print("[msbt_to_yaml]: {} bytes of ATR1 attributes are not part of the YAML output".format(
            len(message_file.attributes)))

    translations = {}
    for label, text in message_file.items():
        if label in translations:
            print("[msbt_to_yaml]: Skipping repeated label {}".format(label))
            continue
        translations[label] = PreservedScalarString(text)

    with open(output_filename, 'w', encoding="utf8", newline='\n') as weblate_file:
        create_yaml().dump(translations, weblate_file)

    print("Generated Weblate file: {}".format(output_filename))
    return output_filename


@mainFunction
def yaml_to_msbt(yaml_filename, output_filename=None):
    """
    Build an MSBT file from a YAML mapping of label to text.

    Args:
        yaml_filename (str): The YAML file, as written by msbt_to_yaml.
        output_filename (str, optional): Output name. Defaults to '<name>_msbt.msbt'.
    """
    output_filename = generate_output_filename(yaml_filename, "msbt", file_extension="msbt",
                                               output_filename=output_filename)
    try:
        with open(yaml_filename, 'r', encoding="utf8") as yaml_file:
            yaml_data = create_yaml().load(yaml_file) or {}
    except FileNotFoundError:
        print("{} not found. Aborting.".format(yaml_filename))
        return None
    except ruamel.yaml.YAMLError as e:
        print("Error reading {}: {}".format(yaml_filename, e))
        return None

    labels = []
    texts = []
    for conIndex, conText in yaml_data.items():
        labels.append((len(labels), str(conIndex)))
        texts.append("" if conText is None else str(conText))

    try:
        size = write_msbt_file(output_filename, msbt.MSBT(labels, texts))
    except msbt.FormatError as e:
        print("Error writing {}: {}".format(output_filename, e))
        return None

    print(f"[yaml_to_msbt]: Number of Entries: {len(labels)}")
    print(f"[yaml_to_msbt]: File Size: {size}")
    print(f"Done. Output written to {output_filename}")
    return output_filename


def get_po_metadata(filename):
    now = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M+0000")
    return {
        "PO-Revision-Date": now,
        "MIME-Version": "1.0",
        "Content-Type": "text/plain; charset=UTF-8",
        "Content-Transfer-Encoding": "8bit",
        "X-Generator": "msbttools",
        "X-Source-File": os.path.basename(filename),
    }


@mainFunction
def create_po_from_msbt(source_msbt_file, translated_msbt_file=None):
    """
    Create a .po file with one entry per label.

    Args:
        source_msbt_file (str): The untranslated .msbt file, its text becomes msgid.
        translated_msbt_file (str, optional): A translated .msbt file, its text becomes msgstr.
            Without it msgstr is left empty.

    Output:
        <name>.po where msgctxt is the label. Entries with an empty source text are skipped
        since an empty msgid is reserved for the PO header.
    """
    output_filename = generate_output_filename(source_msbt_file, file_extension="po")
    try:
        source = read_msbt_file(source_msbt_file)
        translated = read_msbt_file(translated_msbt_file) if translated_msbt_file else None
    except FileNotFoundError as e:
        print("{} not found. Aborting.".format(e.filename))
        return None
    except msbt.FormatError as e:
        print("Error reading MSBT file: {}".format(e))
        return None

    po = polib.POFile()
    po.metadata = get_po_metadata(source_msbt_file)
    skipped = 0
    for label, text in source.items():
        if not text:
            skipped += 1
            continue
        msgstr = ""
        if translated is not None:
            msgstr = translated.find(label) or ""
        po.append(polib.POEntry(msgctxt=label, msgid=text, msgstr=msgstr))

    po.save(output_filename)
    print(f"[create_po_from_msbt]: Entries: {len(po)}")
    print(f"[create_po_from_msbt]: Skipped empty: {skipped}")
    print(f"Done. Created .po file: {output_filename}")
    return output_filename


@mainFunction
def apply_po_to_msbt(msbt_filename, po_filename, output_filename=None):
    """
    Replace the text of every label that has a translation in a .po file.

    Args:
        msbt_filename (str): The .msbt file to update.
        po_filename (str): A .po file whose msgctxt values are labels.
        output_filename (str, optional): Output name. Defaults to '<name>_translated.msbt'.

    Notes:
        Empty and obsolete msgstr entries are ignored, so untranslated labels keep
        their original text. ATR1 attributes are kept.
    """
    output_filename = generate_output_filename(msbt_filename, "translated", file_extension="msbt",
                                               output_filename=output_filename)
    if not os.path.isfile(po_filename):
        print("{} not found. Aborting.".format(po_filename))
        return None
    try:
        message_file = read_msbt_file(msbt_filename)
        po = polib.pofile(po_filename)
    except FileNotFoundError as e:
        print("{} not found. Aborting.".format(e.filename))
        return None
    except (IOError, msbt.FormatError) as e:
        print("Error reading input: {}".format(e))
        return None

    replacements = {}
    for entry in po:
        if entry.obsolete or not entry.msgctxt or not entry.msgstr:
            continue
        replacements[entry.msgctxt] = entry.msgstr

    known_labels = {label for _, label in message_file.labels}
    unknown = sorted(set(replacements) - known_labels)
    for label in unknown:
        print("[apply_po_to_msbt]: No label {} in {}".format(label, msbt_filename))

    write_msbt_file(output_filename, message_file.replace_texts(replacements))
    print(f"[apply_po_to_msbt]: Translated: {len(replacements) - len(unknown)}")
    print(f"Done. Output written to {output_filename}")
    return output_filename


@mainFunction
def list_labels(msbt_filename):
    """
    Print the index, label and first line of text of every entry.

    Args:
        msbt_filename (str): The .msbt file to read.
    """
    try:
        message_file = read_msbt_file(msbt_filename)
    except FileNotFoundError:
        print("{} not found. Aborting.".format(msbt_filename))
        return
    except msbt.FormatError as e:
        print("Error reading {}: {}".format(msbt_filename, e))
        return

    for index, label in message_file.labels:
        first_line = message_file.texts[index].split('\n', 1)[0]
        print("{:>5} {}: {}".format(index, label, first_line))
    print(f"[list_labels]: Number of Entries: {len(message_file.labels)}")


@mainFunction
def verify_round_trip(msbt_filename):
    """
    Check that an MSBT file survives conversion unchanged.

    Rebuilds the binary twice to confirm the output is stable, then converts it to a
    text document and back and compares labels and texts.

    Args:
        msbt_filename (str): The .msbt file to check.

    Returns:
        bool: True when both checks pass.
    """
    try:
        message_file = read_msbt_file(msbt_filename)
    except FileNotFoundError:
        print("{} not found. Aborting.".format(msbt_filename))
        return False
    except msbt.FormatError as e:
        print("Error reading {}: {}".format(msbt_filename, e))
        return False

    rebuilt = message_file.to_binary()
    binary_stable = msbt.from_binary(rebuilt).to_binary() == rebuilt

    try:
        from_text = msbt.from_text(message_file.to_text())
    except msbt.FormatError as e:
        print("[verify_round_trip]: Text conversion failed: {}".format(e))
        return False
    text_stable = from_text.labels == message_file.labels and from_text.texts == message_file.texts
    if not text_stable:
        for (index, label), (_, parsed_label) in zip(message_file.labels, from_text.labels):
            if label != parsed_label or message_file.texts[index] != from_text.texts[index]:
                print("[verify_round_trip]: First difference at {} ({})".format(index, label))
                break

    print("[verify_round_trip]: Binary: {}".format("OK" if binary_stable else "CHANGED"))
    print("[verify_round_trip]: Text: {}".format("OK" if text_stable else "CHANGED"))
    return binary_stable and text_stable


# To run the main function
if __name__ == "__main__":
    main()
