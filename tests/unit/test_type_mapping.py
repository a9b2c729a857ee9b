"""Unit tests for value conversion before binding."""
import datetime
import enum
from types import SimpleNamespace
from unittest.mock import patch

import numpy as np
import pandas as pd
import pytest
from rowbind.convert import ENTRY_POINT_GROUP, ConverterChain, EnumValueMapper
from rowbind.convert import SqlTypeMapper, to_nullable


class Size(enum.Enum):
    SMALL = 1
    LARGE = 2


class UpperMapper(SqlTypeMapper):

    def convert(self, value):
        if isinstance(value, str):
            return value.upper()
        return value


class TestToNullable:

    @pytest.mark.parametrize(('value', 'expected'), [
        (None, None),
        (float('nan'), None),
        (np.nan, None),
        (np.float64('nan'), None),
        (np.datetime64('NaT'), None),
        (pd.NaT, None),
        (pd.NA, None),
        (np.int64(7), 7),
        (np.float32(1.5), 1.5),
        (np.bool_(False), False),
        ('text', 'text'),
        (0, 0),
    ], ids=['none', 'nan', 'np_nan', 'np_float_nan', 'nat64', 'pd_nat', 'pd_na',
            'int64', 'float32', 'bool_', 'str', 'zero'])
    def test_values(self, value, expected):
        assert to_nullable(value) == expected

    def test_numpy_scalars_become_python_types(self):
        assert type(to_nullable(np.int32(3))) is int
        assert type(to_nullable(np.float64(2.5))) is float

    def test_timestamps(self):
        ts = pd.Timestamp('2023-05-15 14:30:45')
        assert to_nullable(ts) == datetime.datetime(2023, 5, 15, 14, 30, 45)
        assert type(to_nullable(ts)) is datetime.datetime
        assert to_nullable(np.datetime64('2023-05-15T14:30:45')) == datetime.datetime(2023, 5, 15, 14, 30, 45)


class TestConverterChain:

    def test_identity_when_empty(self):
        value = object()
        assert ConverterChain().convert(value) is value

    def test_first_change_wins(self):
        chain = ConverterChain([EnumValueMapper(), UpperMapper(), lambda v: 'never'])
        assert chain.convert(Size.LARGE) == 2
        assert chain.convert('abc') == 'ABC'

    def test_unhandled_value_falls_through(self):
        chain = ConverterChain([EnumValueMapper(), UpperMapper()])
        assert chain.convert(5) == 5

    def test_nullable_unwrapped_before_converters(self):
        seen = []

        def record(value):
            seen.append(value)
            return value

        ConverterChain([record]).convert(np.int64(4))
        assert seen == [4]
        assert type(seen[0]) is int

    def test_plain_functions(self):
        chain = ConverterChain([str])
        assert chain(5) == '5'
        assert len(chain) == 1

    def test_rejects_non_callables(self):
        with pytest.raises(TypeError, match='must be callable'):
            ConverterChain([42])

    def test_from_entry_points_sorted_and_instantiated(self):
        entries = [
            SimpleNamespace(name='b_upper', value='tests:UpperMapper', load=lambda: UpperMapper),
            SimpleNamespace(name='a_enum', value='tests:EnumValueMapper', load=lambda: EnumValueMapper),
        ]
        with patch('rowbind.convert.entry_points', return_value=entries) as mock_eps:
            chain = ConverterChain.from_entry_points()

        mock_eps.assert_called_once_with(group=ENTRY_POINT_GROUP)
        assert [type(c) for c in chain.converters] == [EnumValueMapper, UpperMapper]
